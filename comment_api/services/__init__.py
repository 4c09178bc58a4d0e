# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic, store access and caching for a single aggregate:
#
#   comment_service  - CRUD + cache-aside list + reply lookup for Comment
#
# All service functions accept an AsyncSession as their first argument.
# Read paths leave the transaction to the ``get_db`` dependency; write
# paths commit before invalidating the cached list.
