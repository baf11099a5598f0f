"""Image authenticity analysis: model scoring, forensics and the confidence formula."""
