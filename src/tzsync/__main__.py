import sys

from tzsync.daemon import main

sys.exit(main())
