import sys

from mapsync.cli import main

sys.exit(main())
