"""Alert message rendering."""


def format_number(value):
    """Render a number the way a reader expects: 30.0 -> "30", 35.5 -> "35.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_message(template, metric_name, value, threshold):
    """Substitute {metricName}, {value} and {threshold} in a rule's template.

    Every occurrence is replaced; any other placeholder is left as written.
    """
    replacements = {
        "{metricName}": str(metric_name),
        "{value}": format_number(value),
        "{threshold}": format_number(threshold),
    }
    message = template or ""
    for placeholder, text in replacements.items():
        message = message.replace(placeholder, text)
    return message
