import sys

from novelgen.cli import main

sys.exit(main())
