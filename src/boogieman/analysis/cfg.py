"""Block graphs for Boogie procedure bodies.

The graph of a body has one node per block, keyed by the block's first
label, with an edge for every ``goto`` target and a fall-through edge from a
block that ends without ``goto`` or ``return`` to the next block. Blocks
without a label are keyed by their position (``"#3"``).

Graph nodes carry the Block itself in the ``block`` node attribute.
"""

import networkx as nx

from boogieman.language.boogie import ast


def blockKey(block, index):
    return block.name if block.name is not None else "#%d" % index


def terminator(block):
    statements = block.statements
    if statements and isinstance(statements[-1], (ast.GotoStatement, ast.ReturnStatement)):
        return statements[-1]
    return None


def blockGraph(body):
    """Build the networkx DiGraph of ``body``.

    Returns:
        (graph, entry): entry is the key of the first block, or None for a
        body without blocks.
    """
    graph = nx.DiGraph()
    blocks = body.blocks
    keys = [blockKey(block, index) for index, block in enumerate(blocks)]

    labels = {}
    for key, block in zip(keys, blocks):
        graph.add_node(key, block=block)
        for name in block.names:
            labels[name] = key

    for index, (key, block) in enumerate(zip(keys, blocks)):
        last = terminator(block)
        if isinstance(last, ast.GotoStatement):
            for target in last.identifiers:
                if target.name in labels:
                    graph.add_edge(key, labels[target.name])
        elif last is None and index + 1 < len(blocks):
            graph.add_edge(key, keys[index + 1])

    return graph, (keys[0] if keys else None)


def dominates(idom, a, b):
    """Whether ``a`` dominates ``b`` in the immediate-dominator map ``idom``."""
    while b is not None:
        if a == b:
            return True
        parent = idom.get(b)
        if parent == b:
            break
        b = parent
    return False


def naturalLoops(graph, entry):
    """Find the natural loops of a block graph.

    A back edge ``u -> h`` is an edge whose target dominates its source; the
    loop of header ``h`` is ``h`` plus every block that reaches ``u``
    without passing through ``h``. Loops sharing a header are merged.

    Returns:
        dict: header key -> set of body keys (header included)
    """
    loops = {}
    if entry is None:
        return loops

    idom = nx.immediate_dominators(graph, entry)
    reachable = nx.descendants(graph, entry) | {entry}

    for u, h in graph.edges():
        if u not in reachable or not dominates(idom, h, u):
            continue

        body = loops.setdefault(h, {h})
        work = [u]
        while work:
            node = work.pop()
            if node in body:
                continue
            body.add(node)
            work.extend(graph.predecessors(node))

    return loops
