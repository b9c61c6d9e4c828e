from ebook_factory.cli import main

raise SystemExit(main())
