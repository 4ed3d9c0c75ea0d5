from mcp_stdio.cli import main

raise SystemExit(main())
