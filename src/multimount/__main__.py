import sys

from multimount.main import main

sys.exit(main())
