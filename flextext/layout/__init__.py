"""Box layout: the flex tree and the text measurement bridge."""
