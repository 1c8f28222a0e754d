import sys

from pubrules.app import main

sys.exit(main())
