"""Configuration for pwvault.

`config.settings` holds the constants imported by the library code;
`config.loader` reads the user's JSON settings file. The loader is not
imported here so that library modules can import `config.settings`
without pulling the loader (and, through it, the library) back in.
"""
