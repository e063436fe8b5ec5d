import sys

from hybrid_kb.cli import main

sys.exit(main())
