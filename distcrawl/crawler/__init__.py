"""distcrawl.crawler: admission, politeness, robots, retries and the fetch pipeline."""
