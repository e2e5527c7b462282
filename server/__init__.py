# Server package
