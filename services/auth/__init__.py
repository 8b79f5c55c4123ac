"""Authentication helpers: ``hashing`` for passwords, ``password`` for login flows."""
