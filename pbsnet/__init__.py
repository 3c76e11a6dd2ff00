"""
pbsnet API package.

A FastAPI backend-for-frontend that issues its own bearer tokens and proxies
profile, system-data and profile-picture operations to an Appwrite project
(user directory, document database, file storage).
"""
