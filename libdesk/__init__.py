"""Library Desk - core package

This package contains the library management domain:
- Book, member and borrow records (book.py, member.py, borrow.py)
- Inventory ledger and borrow workflow (inventory.py, workflow.py)
- Catalog search and dashboard statistics (catalog.py, statistics.py)
- Collection store (database.py)
- Library facade tying them together (library.py)
"""
