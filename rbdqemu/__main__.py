"""Allow ``python -m rbdqemu``."""

from rbdqemu.cli import main

raise SystemExit(main())
