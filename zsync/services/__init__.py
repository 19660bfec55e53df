"""Application services.

Services implement the release sync use case on top of core/ types and the
platform/ transport. They report progress only through ConsoleProtocol.
"""
