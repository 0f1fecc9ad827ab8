import sys

from tonewatch.cli import main

sys.exit(main())
