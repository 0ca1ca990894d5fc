import sys

from ledger_migration.main import main

sys.exit(main())
