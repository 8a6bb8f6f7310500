from .pattern_matcher import matches
from .test_signal import read_signal, count_failures
from .verifier import PolicyVerifier
from .tdd_gate import TDDGate
