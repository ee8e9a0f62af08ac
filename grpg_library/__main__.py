import sys

from grpg_library.cli import main

sys.exit(main())
