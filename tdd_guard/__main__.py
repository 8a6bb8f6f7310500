import sys

from tdd_guard.cli import main

sys.exit(main())
