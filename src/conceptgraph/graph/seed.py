"""Starter catalog of web-development concepts.

Loaded by ``conceptgraph init-db``. Every record has a fixed id, so seeding
an already seeded store updates it in place.
"""

import logging

from .knowledge_graph import KnowledgeGraph
from .models import (
    CodeExample,
    Concept,
    ConceptType,
    Relationship,
    RelationshipType,
    Resource,
    ResourceType,
)

logger = logging.getLogger(__name__)


# Listed so every prerequisite comes before the concepts requiring it
CATALOG: list[Concept] = [
    Concept(
        id="concept-html",
        name="HTML",
        description="Markup language describing the structure of web pages.",
        type=ConceptType.LANGUAGE,
        difficulty=1,
        resources=[
            Resource(
                id="resource-mdn-html",
                title="MDN: HTML basics",
                url="https://developer.mozilla.org/en-US/docs/Learn/Getting_started_with_the_web/HTML_basics",
                type=ResourceType.DOCUMENTATION,
                difficulty=1,
                effectiveness=0.8,
                tags=["html", "beginner"],
            )
        ],
    ),
    Concept(
        id="concept-css",
        name="CSS",
        description="Style sheet language for layout and presentation.",
        type=ConceptType.LANGUAGE,
        difficulty=2,
        prerequisites=["concept-html"],
    ),
    Concept(
        id="concept-javascript",
        name="JavaScript",
        description="The programming language of the browser.",
        type=ConceptType.LANGUAGE,
        difficulty=3,
        prerequisites=["concept-html"],
        examples=[
            CodeExample(
                id="example-javascript-functions",
                title="Functions and closures",
                code=(
                    "function counter() {\n"
                    "  let count = 0;\n"
                    "  return () => ++count;\n"
                    "}\n"
                    "const next = counter();\n"
                    "next(); // 1\n"
                ),
                explanation="A closure keeps access to variables of the scope it was created in.",
                language="javascript",
                tags=["functions", "closures"],
            )
        ],
        resources=[
            Resource(
                id="resource-javascript-info",
                title="The Modern JavaScript Tutorial",
                url="https://javascript.info/",
                type=ResourceType.TUTORIAL,
                difficulty=3,
                effectiveness=0.9,
                tags=["javascript"],
            )
        ],
    ),
    Concept(
        id="concept-recursion",
        name="Recursion",
        description="Solving a problem by reducing it to smaller instances of itself.",
        type=ConceptType.ALGORITHM,
        difficulty=4,
        prerequisites=["concept-javascript"],
    ),
    Concept(
        id="concept-dom",
        name="DOM Manipulation",
        description="Reading and changing the document tree from JavaScript.",
        type=ConceptType.PATTERN,
        difficulty=4,
        prerequisites=["concept-javascript", "concept-html"],
    ),
    Concept(
        id="concept-async",
        name="Asynchronous JavaScript",
        description="Promises, async/await and the event loop.",
        type=ConceptType.PATTERN,
        difficulty=5,
        prerequisites=["concept-javascript"],
        examples=[
            CodeExample(
                id="example-async-fetch",
                title="Fetching JSON with async/await",
                code=(
                    "async function loadUser(id) {\n"
                    "  const response = await fetch(`/api/users/${id}`);\n"
                    "  return response.json();\n"
                    "}\n"
                ),
                explanation="await pauses the function until the promise settles.",
                language="javascript",
                tags=["promises", "fetch"],
            )
        ],
    ),
    Concept(
        id="concept-typescript",
        name="TypeScript",
        description="JavaScript with a static type system.",
        type=ConceptType.LANGUAGE,
        difficulty=5,
        prerequisites=["concept-javascript"],
        related_concepts=["concept-javascript"],
    ),
    Concept(
        id="concept-virtual-dom",
        name="Virtual DOM",
        description="In-memory tree diffed against the real DOM to batch updates.",
        type=ConceptType.DATA_STRUCTURE,
        difficulty=6,
        prerequisites=["concept-dom"],
    ),
    Concept(
        id="concept-react",
        name="React",
        description="Component-based library for building user interfaces.",
        type=ConceptType.FRAMEWORK,
        difficulty=6,
        prerequisites=["concept-javascript", "concept-dom"],
        examples=[
            CodeExample(
                id="example-react-component",
                title="A function component",
                code=(
                    "function Greeting({ name }) {\n"
                    "  return <h1>Hello, {name}!</h1>;\n"
                    "}\n"
                ),
                explanation="Components are functions from props to elements.",
                language="jsx",
                tags=["components", "jsx"],
            )
        ],
        resources=[
            Resource(
                id="resource-react-docs",
                title="React: Quick Start",
                url="https://react.dev/learn",
                type=ResourceType.DOCUMENTATION,
                difficulty=5,
                effectiveness=0.9,
                tags=["react"],
            )
        ],
    ),
    Concept(
        id="concept-component-composition",
        name="Component Composition",
        description="Building interfaces from small components passed as children and props.",
        type=ConceptType.BEST_PRACTICE,
        difficulty=6,
        prerequisites=["concept-react"],
    ),
    Concept(
        id="concept-react-hooks",
        name="React Hooks",
        description="useState, useEffect and custom hooks for state and side effects.",
        type=ConceptType.PATTERN,
        difficulty=7,
        prerequisites=["concept-react", "concept-async"],
        examples=[
            CodeExample(
                id="example-react-use-state",
                title="Counter with useState",
                code=(
                    "function Counter() {\n"
                    "  const [count, setCount] = useState(0);\n"
                    "  return <button onClick={() => setCount(count + 1)}>{count}</button>;\n"
                    "}\n"
                ),
                explanation="useState returns the current value and a setter that re-renders.",
                language="jsx",
                tags=["hooks", "state"],
            )
        ],
    ),
    Concept(
        id="concept-state-management",
        name="State Management",
        description="Sharing and updating application state across components.",
        type=ConceptType.PATTERN,
        difficulty=8,
        prerequisites=["concept-react-hooks"],
        related_concepts=["concept-component-composition"],
    ),
]

RELATIONSHIPS: list[Relationship] = [
    Relationship(source="concept-react", target="concept-virtual-dom", type=RelationshipType.USES),
    Relationship(source="concept-typescript", target="concept-javascript", type=RelationshipType.EXTENDS),
    Relationship(
        source="concept-state-management",
        target="concept-component-composition",
        type=RelationshipType.USES,
    ),
    Relationship(source="concept-react-hooks", target="concept-state-management", type=RelationshipType.IMPLEMENTS),
]


def seed_catalog(graph: KnowledgeGraph) -> int:
    """Load the starter catalog into a graph.

    Returns:
        Number of concepts written.
    """
    for concept in CATALOG:
        graph.add_concept(concept)
    for relationship in RELATIONSHIPS:
        graph.add_relationship(relationship)

    logger.info(f"Seeded {len(CATALOG)} concepts and {len(RELATIONSHIPS)} relationships")
    return len(CATALOG)
