from nctest.cli.main import main

raise SystemExit(main())
