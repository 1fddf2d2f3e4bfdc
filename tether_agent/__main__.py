import sys

from tether_agent.cli.app import main

sys.exit(main())
