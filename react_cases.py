"""React coding test cases for the Ollama benchmark, grouped by difficulty."""

import random
import uuid

DIFFICULTIES = ("basic", "intermediate", "advanced", "expert")


def _case(name: str, category: str, prompt: str, expected: str) -> dict:
    return {"name": name, "category": category, "prompt": prompt, "expectedOutput": expected}


REACT_TEST_CASES: dict[str, list[dict]] = {
    "basic": [
        _case(
            "Simple Greeting Component", "component-creation",
            "Create a simple React component called Greeting that displays 'Hello, World!' in an h1 tag.",
            "A React component that renders an h1 with 'Hello, World!'",
        ),
        _case(
            "Props Display Component", "props-handling",
            "Create a React component called UserProfile that accepts 'name' and 'email' props "
            "and displays them in a div with appropriate labels.",
            "A React component that accepts and displays name and email props",
        ),
        _case(
            "List Rendering", "list-rendering",
            "Create a React component called FruitList that takes an array of fruits as a prop "
            "and renders them as an unordered list (ul with li elements).",
            "A React component that renders an array of items as a list",
        ),
        _case(
            "Conditional Rendering", "conditional-rendering",
            "Create a React component called LoginStatus that accepts an 'isLoggedIn' prop and "
            "displays 'Welcome back!' if true, or 'Please log in' if false.",
            "A React component that conditionally renders different content based on props",
        ),
        _case(
            "Button Component", "event-handling",
            "Create a React button component called ClickButton that displays 'Click me!' and "
            "shows an alert with the message 'Button clicked!' when clicked.",
            "A React component with a button that shows an alert when clicked",
        ),
        _case(
            "Styling Component", "styling",
            "Create a React component called ColoredBox that renders a div with a width and height "
            "of 100px, a background color of blue, and rounded corners (10px border radius).",
            "A React component with a styled div",
        ),
        _case(
            "Image Display", "media-handling",
            "Create a React component called ProfileImage that accepts an 'src' prop for the image "
            "URL and an 'alt' prop for the alt text, and displays the image with a border.",
            "A React component that displays an image with props",
        ),
    ],
    "intermediate": [
        _case(
            "Counter with useState", "state-management",
            "Create a React component called Counter that uses the useState hook to implement a "
            "counter. Include buttons to increment and decrement the count, and display the current count.",
            "A React component with useState that manages a counter with increment/decrement buttons",
        ),
        _case(
            "Form with Controlled Components", "forms",
            "Create a React form component called UserForm with controlled inputs for 'name' and "
            "'email'. Include form validation that checks if the email contains '@' and display an "
            "error message if it doesn't. On form submission, log the form data to the console.",
            "A React form with controlled components and basic validation",
        ),
        _case(
            "Data Fetching with useEffect", "data-fetching",
            "Create a React component called UserList that fetches user data from "
            "'https://jsonplaceholder.typicode.com/users' using the useEffect hook and displays the "
            "names in a list. Show a loading state while fetching data.",
            "A React component that fetches and displays data with loading state",
        ),
        _case(
            "Toggle Component", "state-management",
            "Create a React component called ThemeToggle that uses useState to toggle between "
            "'light' and 'dark' themes. The component should display the current theme and a button "
            "to toggle it. Apply different background and text colors based on the theme.",
            "A React component with theme toggling functionality",
        ),
        _case(
            "Search Filter", "filtering",
            "Create a React component called SearchableList that displays a list of items and "
            "includes a search input. As the user types in the search input, filter the displayed "
            "items to only show those that match the search term.",
            "A React component with search filtering functionality",
        ),
        _case(
            "Tabs Component", "navigation",
            "Create a React component called TabsContainer that implements a basic tabs interface. "
            "It should have at least 3 tabs with different content, and clicking on a tab should "
            "display its associated content.",
            "A React component with tabs functionality",
        ),
        _case(
            "Local Storage with useEffect", "persistence",
            "Create a React component called NotesApp that allows users to write and save notes. "
            "Use useState for the note content and useEffect to save the notes to localStorage "
            "whenever they change. Load saved notes when the component mounts.",
            "A React component that persists data to localStorage",
        ),
    ],
    "advanced": [
        _case(
            "Custom Form Hook", "custom-hooks",
            "Create a custom React hook called useForm that manages form state, handles input "
            "changes, and provides validation. Then create a component that uses this hook to "
            "create a registration form with fields for name, email, and password.",
            "A custom form hook and a component that uses it",
        ),
        _case(
            "Context for Theme Management", "context-api",
            "Create a React theme context that provides theme values (colors, font sizes) to "
            "components. Implement a ThemeProvider component and a useTheme hook. Then create a "
            "component that uses the theme context to style itself.",
            "A theme context implementation with provider and consumer components",
        ),
        _case(
            "Reducer for Complex State", "reducers",
            "Create a React component called TaskManager that uses useReducer to manage a list of "
            "tasks. Implement actions for adding, toggling completion, editing, and removing tasks. "
            "Include appropriate UI for each action.",
            "A React component using useReducer for complex state management",
        ),
        _case(
            "Optimized Rendering", "performance",
            "Create a React component called ExpensiveList that renders a list of 1000 items. Use "
            "useMemo to optimize the filtering of this list based on a search term, and useCallback "
            "to optimize event handlers. Demonstrate how you would prevent unnecessary re-renders.",
            "A React component with optimized rendering using useMemo and useCallback",
        ),
        _case(
            "Modal with Portal", "portals",
            "Create a React modal component using createPortal that renders its content outside "
            "the normal DOM hierarchy. The modal should have open/close functionality and include "
            "a backdrop that closes the modal when clicked.",
            "A React modal component using createPortal",
        ),
        _case(
            "Custom Debounce Hook", "custom-hooks",
            "Create a custom React hook called useDebounce that debounces a value by a specified "
            "delay. Then create a search component that uses this hook to debounce search input, "
            "only triggering the search after the user stops typing.",
            "A custom debounce hook and a component that uses it",
        ),
        _case(
            "Infinite Scroll", "performance",
            "Create a React component called InfiniteScroll that implements infinite scrolling. It "
            "should load more items when the user scrolls to the bottom of the page. Use the "
            "Intersection Observer API or a scroll event listener.",
            "A React component with infinite scrolling functionality",
        ),
    ],
    "expert": [
        _case(
            "Data Fetching Hook with Caching", "advanced-hooks",
            "Create a custom React hook called useFetchWithCache that fetches data from an API and "
            "implements a caching mechanism. The hook should handle loading and error states, cache "
            "responses, and provide a way to invalidate the cache.",
            "A custom data fetching hook with caching functionality",
        ),
        _case(
            "Complex Form with Dynamic Fields", "advanced-forms",
            "Create a React component for a dynamic form builder that allows users to add, remove, "
            "and rearrange form fields of different types (text, number, select, etc.). Implement "
            "validation for each field type and form submission.",
            "A React component for building dynamic forms with validation",
        ),
        _case(
            "Virtualized List Component", "performance",
            "Create a React component called VirtualizedList that implements a virtualized list "
            "rendering only the items currently visible in the viewport. The list should "
            "efficiently handle thousands of items without performance issues.",
            "A React component with virtualized list rendering",
        ),
        _case(
            "Advanced Animation System", "animations",
            "Create a React animation system that handles complex transitions between components. "
            "Implement enter/exit animations, list item animations, and page transitions. Use CSS "
            "transitions or a library like Framer Motion.",
            "A React animation system with various transition types",
        ),
        _case(
            "State Management Library Integration", "state-management",
            "Create a React application that demonstrates integration with a state management "
            "library (Redux, Zustand, Jotai, etc.). Implement a feature that requires global state, "
            "actions/reducers, and connects multiple components.",
            "A React application with state management library integration",
        ),
        _case(
            "Custom Renderer", "advanced-patterns",
            "Create a custom React renderer that takes a JSON configuration and renders React "
            "components based on that configuration. The renderer should support nested "
            "components, props passing, and event handling.",
            "A custom React renderer for JSON configurations",
        ),
        _case(
            "GraphQL Client Implementation", "data-fetching",
            "Create a custom React hook that implements a simple GraphQL client. The hook should "
            "handle queries, mutations, loading states, and caching. Demonstrate its use with a "
            "component that fetches and displays data.",
            "A custom GraphQL client hook and a component that uses it",
        ),
    ],
}


def _cases_for(difficulty: str, count: int) -> list[dict]:
    available = REACT_TEST_CASES.get(difficulty, [])
    chosen = available if count >= len(available) else random.sample(available, count)
    return [{**case, "id": str(uuid.uuid4()), "difficulty": difficulty} for case in chosen]


def generate_react_test_cases(difficulties=DIFFICULTIES, count: int = 5) -> list[dict]:
    """Pick up to ``count`` cases per difficulty, each with a fresh id."""
    cases: list[dict] = []
    for difficulty in difficulties:
        cases.extend(_cases_for(difficulty, count))
    return cases
