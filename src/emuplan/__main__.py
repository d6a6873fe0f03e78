import sys

from emuplan.cli import main

sys.exit(main())
