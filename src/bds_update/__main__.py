import sys

from bds_update import main

sys.exit(main())
