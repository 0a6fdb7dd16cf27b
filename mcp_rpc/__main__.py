import sys

from mcp_rpc.cli import main

sys.exit(main())
