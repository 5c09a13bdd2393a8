import sys

from datedmail.cli import main

sys.exit(main())
