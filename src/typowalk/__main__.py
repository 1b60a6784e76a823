from typowalk.cli import main

raise SystemExit(main())
