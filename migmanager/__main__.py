import sys

from migmanager.cli import main

sys.exit(main())
