"""
Core application engine for orchestrating the download process.

This package contains the primary logic. The `DownloadManager` acts
as the per-release coordinator, delegating the task of resolving and
writing each individual track to the `TrackProcessor`.
"""
