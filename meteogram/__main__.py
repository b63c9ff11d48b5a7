import sys

from meteogram.cli import main

sys.exit(main())
