from edsdk_session.cli import main

raise SystemExit(main())
