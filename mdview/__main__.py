from mdview.cli import main

raise SystemExit(main())
