"""Report formats for dependency scan results, the data model they share, and markdown helpers."""