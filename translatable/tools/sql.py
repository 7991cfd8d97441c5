from pypika import Parameter


class SQLParams:
    """
    Collects bound values and hands out native $n placeholders.
    One instance per compiled statement.
    """
    def __init__(self, start_index=1):
        self.params = []
        self.index = start_index

    def add(self, value):
        """
        Add a single value and return the placeholder string ($n).
        """
        self.params.append(value)
        p = f"${self.index}"
        self.index += 1
        return p

    def add_many(self, values):
        """
        Add multiple values and return placeholder comma-separated string ($n, $n+1...).
        """
        placeholders = []
        for v in values:
            placeholders.append(self.add(v))
        return ", ".join(placeholders)

    def parameter(self, value):
        """
        Same as add() but wrapped for pypika.
        """
        return Parameter(self.add(value))

    def bind(self, template, values):
        """
        Replace each '?' marker of a raw fragment with the next placeholder.
        Raw fragments are produced internally and never carry literal '?'.
        """
        parts = template.split('?')
        if len(parts) - 1 != len(values):
            raise ValueError(f"Raw fragment expects {len(parts) - 1} bindings, got {len(values)}")

        sql = parts[0]
        for value, tail in zip(values, parts[1:]):
            sql += self.add(value) + tail
        return sql

    def get_params(self):
        return tuple(self.params)
