import sys

from rtvm_cli.cli import main

sys.exit(main())
