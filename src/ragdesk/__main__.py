import sys

from ragdesk.cli import main

sys.exit(main())
