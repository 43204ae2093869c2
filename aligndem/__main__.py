from aligndem.cli import main

raise SystemExit(main())
