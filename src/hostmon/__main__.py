import sys

from hostmon.main import main

sys.exit(main())
