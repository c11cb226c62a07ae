"""
Blog API — Services Layer
===========================

What:  Business rules between the route handlers and the database.

Service Inventory:
    - PostService:    post listing, search, tags, CRUD, publishing
    - ImageIngestor:  upload validation, storage, resizing, thumbnails
    - ImageCatalog:   image rows, ordering, storage stats, orphans
    - AuthService:    password login, account lookup, token refresh
    - TokenService:   bearer token issue and verification
    - TagQuery*:      dialect-specific tag filtering, chosen at startup
"""
