"""Run results, their storage and lookup by package or symbol."""