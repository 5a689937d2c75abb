SUMMARY_CHUNK_TEMPLATE = """{prompt}

Output format:
{format}

Content:
{text}
"""

SUMMARY_REDUCE_TEMPLATE = """{prompt}

The content below is made of partial results produced from consecutive parts
of a larger corpus. Merge them into a single result, keeping the most relevant
entries.

Output format:
{format}

Partial results:
{text}
"""

CATEGORY_FORMAT = (
    "List of categories/labels like: - category1\n- category2\n- category3 "
    "(up to {max_categories})"
)

CATEGORY_PROMPT = (
    "You are a generator of categories. Your task is to analyze the content and "
    "generate a list of categories / labels to tag the content with. You need to "
    "generate a maximum of {max_categories} categories. The categories should be "
    "relevant to the content, concise, and should be in the form of a list."
)

CATEGORY_EXTRACTION_INSTRUCTIONS = "Extract the categories from the text"

EXTRACTION_TEMPLATE = """{instructions}

Return every item found, in the order it appears. Do not invent items.

Text:
{text}
"""

LABELING_INSTRUCTIONS = (
    "Label the content with the categories. Only apply the most relevant labels. "
    "Do not apply labels that are not relevant."
)

LABELING_TEMPLATE = """{instructions}

Available labels (id: name):
{labels}

Answer with the ids of the labels that apply. Use only ids from the list above.
If no label clearly applies, return an empty list.

Content:
{text}
"""
