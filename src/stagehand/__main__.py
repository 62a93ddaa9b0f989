import sys

from stagehand.cli import main

sys.exit(main())
