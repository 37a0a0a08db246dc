import click

def selection_options(func):
    """Attach the --with/--without/--set options shared by build and plan."""
    func = click.option("--set", "assignments", multiple=True, metavar="NAME=VALUE",
                        help="Select a value for an option, e.g. --set arch=32-bit.")(func)
    func = click.option("--without", "without", multiple=True, metavar="OPTION",
                        help="Disable a boolean option.")(func)
    func = click.option("--with", "with_", multiple=True, metavar="OPTION",
                        help="Enable a boolean option.")(func)
    return func

def collect_selections(with_, without, assignments):
    """Merge the selection flags into one name -> value mapping."""
    selections = {}

    def put(name, value):
        if name in selections:
            raise click.BadParameter(f"Option '{name}' is selected more than once.")
        selections[name] = value

    for name in with_:
        put(name, True)
    for name in without:
        put(name, False)
    for item in assignments:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected NAME=VALUE, got '{item}'.", param_hint="--set")
        put(name.strip(), value.strip())
    return selections
