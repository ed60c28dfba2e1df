import sys

from commission_gateway.cli import main

sys.exit(main())
