from pi2mqtt.cli import main

raise SystemExit(main())
