"""
Package archive server.

Indexes a tree of packages laid out as <name>/<version>/<name>.<ext>,
keeps the highest version of each package, caches the result on disk and
serves it to package clients as archive-contents.
"""
