from sync_guard.cli import main

raise SystemExit(main())
